from dishka import Provider, Scope, provide
from core.environment.config import Settings


class EnvironmentProvider(Provider):
    """
    Provider for environment configuration.

    Settings are read once per application container.
    """

    component = "environment"
    scope = Scope.APP

    @provide
    def get_environment(self) -> Settings:
        """
        Provide application settings loaded from the environment and ``.env``.

        Returns
        -------
        Settings
            Application settings instance
        """
        return Settings()
