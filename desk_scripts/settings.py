import os
from typing import ClassVar

from pydantic import Field, ValidationError
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    SettingsConfigDict,
)

SETTINGS_FILE = 'appsettings.json'
DEFAULT_ENVIRONMENT = 'development'
ENV_PREFIX = 'ZENDESK_'

# appsettings.json key -> settings field
SETTINGS_KEYS = {
    'UserName': 'username',
    'UserPassword': 'password',
    'Url': 'url',
}


class SettingsError(Exception):
    pass


class SectionJsonSource(JsonConfigSettingsSource):
    """Reads one section of the appsettings files, later files winning."""

    def __init__(self, settings_cls, section):
        self.section = section
        super().__init__(settings_cls)

    def _read_file(self, file_path):
        try:
            data = super()._read_file(file_path)
        except ValueError as e:
            raise SettingsError(f'{file_path} is not valid JSON: {e}')
        if not isinstance(data, dict):
            raise SettingsError(f'{file_path} must hold a JSON object')

        values = data.get(self.section) or {}
        if not isinstance(values, dict):
            raise SettingsError(f'"{self.section}" in {file_path} must be a JSON object')
        return {
            SETTINGS_KEYS[key]: value
            for key, value in values.items()
            if key in SETTINGS_KEYS and value
        }


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        extra='ignore',
    )

    section: ClassVar[str] = 'Settings'

    username: str = Field(min_length=1, description='Zendesk user name, or email/token')
    password: str = Field(min_length=1, description='Zendesk password or API token')
    url: str = Field(min_length=1, description='Zendesk account URL')

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return init_settings, env_settings, SectionJsonSource(settings_cls, settings_cls.section)


def _describe_errors(e, section):
    fields = []
    for error in e.errors():
        if error['loc'] and error['loc'][0] not in fields:
            fields.append(error['loc'][0])
    keys = [key for key, field in SETTINGS_KEYS.items() if field in fields]
    variables = [f'{ENV_PREFIX}{field.upper()}' for field in fields]
    return (
        f'missing or invalid settings: {", ".join(keys)} (set them in {SETTINGS_FILE} under '
        f'"{section}", via {", ".join(variables)} or on the command line)'
    )


def load_settings(section, directory='.', environment=DEFAULT_ENVIRONMENT, overrides=None):
    """
    Layered settings, later layers winning:

    1. `section` of appsettings.json
    2. `section` of appsettings.<environment>.json
    3. ZENDESK_USERNAME, ZENDESK_PASSWORD and ZENDESK_URL
    4. `overrides` (command line values keyed by field name; empty ones are skipped)

    Both files are optional, but all three values must be set somewhere.
    """
    json_files = [
        os.path.join(directory, SETTINGS_FILE),
        os.path.join(directory, f'appsettings.{environment}.json'),
    ]
    json_section = section

    class SectionSettings(Settings):
        model_config = SettingsConfigDict(json_file=json_files)
        section: ClassVar[str] = json_section

    init_kwargs = {k: v for k, v in (overrides or {}).items() if v}
    try:
        return SectionSettings(**init_kwargs)
    except ValidationError as e:
        raise SettingsError(_describe_errors(e, section))
