import os


class Settings:
    PROJECT_NAME: str = "ebuddy"
    DEBUG: bool = False
    LOG_DIR: str = "log"
    LOG_FILE: str = "ebuddy.log"
    LOG_TO_DB: bool = False
    DB_DIR: str = os.environ.get("EBUDDY_DB_DIR", "db")
    DB_FILE: str = "ebuddy.db"
    STATE_BACKEND: str = os.environ.get("EBUDDY_STATE_BACKEND", "sqlite")
    REDIS_URL: str = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
    REDIS_PREFIX: str = "ebuddy"
    VOCAB_DIR: str = "vocabulary"
    TEMPLATE_DIR: str = "templates"
    STATIC_DIR: str = "static"
    AUDIO_DIR: str = os.path.join("static", "audio")
    SPEECH_ENGINE: str = os.environ.get("EBUDDY_SPEECH_ENGINE", "none")
    SPEECH_LANG: str = "en"
    QUIZ_SIZE: int = 10
    OPTION_COUNT: int = 4
    TIMED_SECONDS: int = 60
    XP_CORRECT: int = 10
    XP_INCORRECT: int = 2
    ROOT_PATH: str = os.environ.get("ROOT_PATH", "")


settings = Settings()
