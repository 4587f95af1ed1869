"""
Registry credentials used while pushing images.
"""
from pydantic import BaseModel, ConfigDict, SecretStr


class Credentials(BaseModel):
    """
    Username and secret for the destination registry.

    Only ever held in memory for the duration of a push. The secret is a
    ``SecretStr`` so that repr, str and log output never reveal it.
    """
    model_config = ConfigDict(frozen=True)

    username: str
    secret: SecretStr

    def __str__(self) -> str:
        return f"{self.username}:**********"
