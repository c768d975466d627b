from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./tracker_import.db"
    date_default_dayfirst: bool = False
    log_level: str = "INFO"
    sql_log_level: str = "WARNING"  # sqlalchemy.engine; INFO echoes statements

    # Validation report shape
    validation_error_limit: int = 100  # Errors returned by a validation report
    preview_row_count: int = 5
    email_max_length: int = 254  # Inputs longer than this never reach the regex

    # Import job execution
    import_checkpoint_interval: int = 10  # Rows between progress checkpoints
    job_error_page_limit: int = 100  # Max error records per status fetch
    import_history_limit: int = 50
    default_status_name: str = "to do"

    # Parsed-records cache shared between validate and import
    records_cache_ttl_seconds: int = 300  # 5 minutes
    records_cache_max_entries: int = 32

    model_config = ConfigDict(env_file=".env", extra="ignore")


settings = Settings()
