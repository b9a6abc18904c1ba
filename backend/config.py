import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Round timers (seconds)
    ROUND_DURATION_SEC = float(os.environ.get('ROUND_DURATION_SEC', '60'))
    ROUND_RESULT_DELAY_SEC = float(os.environ.get('ROUND_RESULT_DELAY_SEC', '3'))
    # Sessions expire this long after creation, regardless of activity
    SESSION_EXPIRY_SEC = float(os.environ.get('SESSION_EXPIRY_SEC', '1800'))
    SESSION_SWEEP_INTERVAL_SEC = float(os.environ.get('SESSION_SWEEP_INTERVAL_SEC', '300'))
    STARTING_HEALTH = int(os.environ.get('STARTING_HEALTH', '100'))
    MAX_TEXT_LENGTH = int(os.environ.get('MAX_TEXT_LENGTH', '1000'))
    MAX_AVATAR_LENGTH = int(os.environ.get('MAX_AVATAR_LENGTH', '16'))
    # Damage oracle. Without an API key a fixed neutral oracle is used.
    OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY', '')
    OPENAI_MODEL = os.environ.get('OPENAI_MODEL', 'gpt-4o-mini')
    ORACLE_TIMEOUT_SEC = float(os.environ.get('ORACLE_TIMEOUT_SEC', '15'))
    ORACLE_TEMPERATURE = float(os.environ.get('ORACLE_TEMPERATURE', '0.7'))
    ORACLE_MAX_TOKENS = int(os.environ.get('ORACLE_MAX_TOKENS', '150'))
