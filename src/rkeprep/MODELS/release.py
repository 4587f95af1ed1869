"""
Models describing upstream releases.
"""
from pydantic import BaseModel, ConfigDict


class ReleaseDescriptor(BaseModel):
    """
    The latest release of an upstream project as reported by its releases API.

    ``version_tag`` is opaque: it is used verbatim to build download URLs and
    image tags and is never parsed or compared.
    """
    model_config = ConfigDict(frozen=True)

    source_name: str
    version_tag: str
