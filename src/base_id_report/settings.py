from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    alchemy_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices('ALCHEMY_API_KEY', 'REACT_APP_ALCHEMY_API_KEY'),
    )
    alchemy_network: str = Field(default='base-mainnet', alias='ALCHEMY_NETWORK')
    infura_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices('INFURA_API_KEY', 'REACT_APP_INFURA_API_KEY'),
    )
    ens_rpc_url: str | None = Field(default=None, alias='ENS_RPC_URL')
    supply_rpc_url: str = Field(default='https://mainnet.base.org', alias='SUPPLY_RPC_URL')
    report_timeout_seconds: int = Field(default=25, alias='REPORT_TIMEOUT_SECONDS')
    frame_base_url: str = Field(
        default='https://farcaster-base-id-report.vercel.app', alias='FRAME_BASE_URL'
    )
    explorer_token_url: str = Field(default='https://basescan.org/token/', alias='EXPLORER_TOKEN_URL')
    theme_store_path: str = Field(default='.theme.json', alias='THEME_STORE_PATH')
    log_level: str = Field(default='INFO', alias='LOG_LEVEL')
    dd_api_key: str | None = Field(default=None, alias='DD_API_KEY')
    dd_service: str = Field(default='base-id-report', alias='DD_SERVICE')
    dd_env: str = Field(default='dev', alias='DD_ENV')
    dd_version: str = Field(default='0.1.0', alias='DD_VERSION')
    dd_site: str = Field(default='datadoghq.com', alias='DD_SITE')
    dd_send_logs: bool = Field(default=True, alias='DD_SEND_LOGS')
    dd_trace_enabled: bool = Field(default=False, alias='DD_TRACE_ENABLED')
    dd_trace_agent_url: str | None = Field(default=None, alias='DD_TRACE_AGENT_URL')

    @property
    def resolved_ens_rpc_url(self) -> str:
        if self.ens_rpc_url:
            return self.ens_rpc_url
        return f'https://mainnet.infura.io/v3/{self.infura_api_key or ""}'


settings = Settings()
