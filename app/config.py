from pydantic_settings import BaseSettings
from pathlib import Path

# Get the repository root directory (parent of app directory)
REPO_ROOT = Path(__file__).parent.parent.absolute()

CLASSIC_DEPLOYMENT_TYPE = "classic"
CLOUD_DEPLOYMENT_TYPE = "cloud"
FORGEOPS_DEPLOYMENT_TYPE = "forgeops"


class Settings(BaseSettings):
    """Application settings."""
    
    # API settings
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_RELOAD: bool = True
    
    # Version and environment
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    
    # Platform connection
    REPOSITORY_TYPE: str = "local"  # "http" or "local"
    PLATFORM_HOST: str = ""
    REALM: str = "alpha"
    DEPLOYMENT_TYPE: str = CLOUD_DEPLOYMENT_TYPE  # "cloud", "forgeops" or "classic"
    ACCESS_TOKEN: str = ""
    HTTP_TIMEOUT: float = 30.0
    LOCAL_REALM_DIR: str = str(REPO_ROOT / "storage" / "realm")
    
    # Engine
    EXPORT_WORKERS: int = 8
    
    # Bundle storage settings
    BUNDLE_STORAGE_TYPE: str = "filesystem"  # "filesystem" or "s3"
    BUNDLE_STORAGE_DIR: str = str(REPO_ROOT / "storage" / "bundles")
    
    # S3 settings (only used if BUNDLE_STORAGE_TYPE = "s3")
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    S3_BUCKET: str = "journey-bundles"
    
    class Config:
        env_file = ".env"

    def supports_themes(self) -> bool:
        """Themes and email templates only exist on platform deployments."""
        return self.DEPLOYMENT_TYPE in (CLOUD_DEPLOYMENT_TYPE, FORGEOPS_DEPLOYMENT_TYPE)

    def realm_managed_user(self) -> str:
        """Managed user object name for the configured realm (alpha -> alpha_user on cloud)."""
        if self.DEPLOYMENT_TYPE == CLOUD_DEPLOYMENT_TYPE:
            realm_name = self.REALM.rstrip("/").split("/")[-1] or "root"
            return f"{realm_name}_user"
        return "user"

settings = Settings()
