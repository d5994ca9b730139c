import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_API_URL = 'https://api.miro.com/v2'
MAX_PAGE_SIZE = 50


def clamp_page_size(page_size):
    return max(1, min(int(page_size), MAX_PAGE_SIZE))


def _int_env(environ, key, default):
    value = environ.get(key)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f'{key} must be an integer, got {value!r}')


@dataclass
class Settings:
    access_token: str
    board_id: str
    api_url: str = DEFAULT_API_URL
    page_size: int = MAX_PAGE_SIZE
    request_delay_ms: int = 300
    rate_limit_hold_ms: int = 31000
    rate_limit_retries: int = 3
    output_dir: str = 'board_sync_output_files'

    @classmethod
    def from_env(cls, environ=None, dotenv_path=None):
        """Build settings from the environment, loading ``.env`` first.

        Variables already set in the environment win over the ``.env`` file.
        """
        if environ is None:
            load_dotenv(dotenv_path, override=False)
            environ = os.environ

        access_token = environ.get('MIRO_ACCESS_TOKEN') or environ.get('MIRO_TOKEN')
        if not access_token:
            raise ConfigError('Please set MIRO_ACCESS_TOKEN environment variable with your Miro access token.')

        # boards ids are often pasted with quotes around them ("uXjV...=")
        board_id = (environ.get('MIRO_BOARD_ID') or '').strip().strip('"')
        if not board_id:
            raise ConfigError('Please set MIRO_BOARD_ID environment variable with the id of the board.')

        return cls(
            access_token=access_token,
            board_id=board_id,
            api_url=(environ.get('MIRO_API_URL') or DEFAULT_API_URL).rstrip('/'),
            page_size=clamp_page_size(_int_env(environ, 'MIRO_PAGE_SIZE', MAX_PAGE_SIZE)),
            request_delay_ms=_int_env(environ, 'MIRO_REQUEST_DELAY_MS', 300),
            rate_limit_hold_ms=_int_env(environ, 'MIRO_RATE_LIMIT_HOLD_MS', 31000),
            rate_limit_retries=_int_env(environ, 'MIRO_RATE_LIMIT_RETRIES', 3),
            output_dir=environ.get('BOARD_SYNC_OUTPUT_DIR') or 'board_sync_output_files',
        )
