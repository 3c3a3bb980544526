from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    MOTHER_SERVER_URL: str = "http://apps.usos.edu.pl/"
    EXTRA_INSTALLATIONS: list[str] = ["https://usosapi.ath.bielsko.pl/"]
    HTTP_TIMEOUT: float = 30.0
    TOKEN_SCHEMES: list[str] = ["https", "http"]  # Tried in order for each token request
    ENABLE_DEBUG_LOGGING: bool = False

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
