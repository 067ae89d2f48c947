import yaml
import os
from typing import List, Optional
from pydantic import BaseModel, Field

STRATEGY_TYPES = ['skill', 'experience', 'education', 'certification', 'semantic']


class DatabaseConfig(BaseModel):
    url: str
    pool_size: int = 20


class ForkConfig(BaseModel):
    """
    Configuration for the fork lifecycle manager.

    isolation_modes is the fallback chain tried in order when a fork is
    provisioned; 'logical' must stay last since it cannot fail on its own.
    """
    max_concurrent_forks: int = 10
    retention_hours: float = 24
    cleanup_interval_minutes: int = 30
    isolation_modes: List[str] = Field(
        default_factory=lambda: ['zero_copy', 'template', 'logical']
    )
    # Database cloned for non-logical forks; defaults to the primary database
    template_database: Optional[str] = None


class CoordinatorConfig(BaseModel):
    timeout_seconds: float = 120
    use_static_weights: bool = False
    strategies: List[str] = Field(default_factory=lambda: list(STRATEGY_TYPES))


class BatchConfig(BaseModel):
    chunk_size: int = 10
    next_batch_delay_seconds: float = 0.1
    completed_retention_minutes: int = 60
    default_page_size: int = 100


class AnalyticsConfig(BaseModel):
    enabled: bool = True
    record_weight_adjustments: bool = True
    record_agent_metrics: bool = True
    record_composite_scores: bool = True
    # Writes queued beyond this are dropped and counted as failed
    max_pending_writes: int = 1000


class AppConfig(BaseModel):
    database: DatabaseConfig
    forks: ForkConfig = Field(default_factory=ForkConfig)
    coordinator: CoordinatorConfig = Field(default_factory=CoordinatorConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    log_level: str = "INFO"


def load_config(config_path: str = "config.yaml") -> AppConfig:
    # If not found at relative path (e.g. running from root), try the repo root
    if not os.path.exists(config_path):
        base_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(base_dir, "..", "config.yaml")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    # Allow env var override for DB URL
    env_db_url = os.environ.get("DATABASE_URL")
    if env_db_url:
        if not data.get('database'):
            data['database'] = {}
        data['database']['url'] = env_db_url

    env_max_forks = os.environ.get("MAX_CONCURRENT_FORKS")
    if env_max_forks:
        if not data.get('forks'):
            data['forks'] = {}
        data['forks']['max_concurrent_forks'] = int(env_max_forks)

    env_timeout = os.environ.get("AGENT_TIMEOUT_SECONDS")
    if env_timeout:
        if not data.get('coordinator'):
            data['coordinator'] = {}
        data['coordinator']['timeout_seconds'] = float(env_timeout)

    env_log_level = os.environ.get("LOG_LEVEL")
    if env_log_level:
        data['log_level'] = env_log_level

    return AppConfig(**data)
