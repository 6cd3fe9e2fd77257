from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single environment setting a client needs before it can boot.

    Attributes:
        env_key (str): Raw key without the "{TYPE}_{ENGINE}_" prefix, e.g. "API_KEY".
        val_type (str): One of "string", "number", "list".
        default (str | int | float | list | None): Value used when the variable is unset.
            None marks the setting as mandatory.
    """

    env_key: str
    val_type: str
    default: str | int | float | list | None = None
