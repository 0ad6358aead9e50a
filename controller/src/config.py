from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # GitHub App credentials
    application_id: str
    github_application_private_key: str
    github_base_url: str = "https://api.github.com"
    github_clone_base_url: str = "https://github.com"
    pipeline_file_path: str = ".kubeci/pipeline.yml"
    http_timeout_seconds: float = 30.0

    # Kubernetes settings
    namespace: str = "kubeci"
    k8s_in_cluster: bool = False  # Set True when running inside K8s
    service_account: str = "kubeci"
    git_checkout_image: str = "kubeci/git-checkout:latest"
    app_label: str = "kubeci"

    # Pod watch settings
    watch_timeout_seconds: int = 300  # Resync interval
    watch_retry_delay_seconds: int = 5

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"
        frozen = True

@lru_cache()
def get_settings() -> Settings:
    return Settings()
