from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class StoreBackend(Enum):
    sqlite = "sqlite"
    firestore = "firestore"


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    env: Env = Env.local
    log_level: str = "INFO"

    spoonacular_base_url: str = "https://api.spoonacular.com/"
    spoonacular_api_key: str = ""
    http_timeout: float = 20

    trending_limit: int = 5
    latest_limit: int = 5
    search_limit: int = 10
    category_limit: int = 5
    favourite_categories: list[str] = ["breakfast", "dinner", "dessert"]

    list_ttl: float = 60
    detail_ttl: float = 300
    rate_limit_backoff: float = 30

    store_backend: StoreBackend = StoreBackend.sqlite
    db_url: str = "sqlite+aiosqlite:///recipes.db"
    recipes_collection: str = "recipes"
    firebase_credentials: str | None = None
    firebase_project_id: str | None = None
