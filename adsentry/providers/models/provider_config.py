"""
Authentication settings handed to a provider.
"""
import logging
import os
from dataclasses import dataclass
from typing import Optional

import chevron

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """
    Values like ``{{{ env.CLICKUP_TOKEN }}}`` in ``authentication`` are
    rendered from the environment, so monitoring config files never hold raw
    secrets. An unset variable renders to an empty string.

    Args:
        authentication (dict): Settings the provider's auth dataclass accepts.
        name (Optional[str]): A display name.
    """

    authentication: Optional[dict]
    name: Optional[str] = None

    def __post_init__(self):
        if not self.authentication:
            return
        for key, value in self.authentication.items():
            if not isinstance(value, str) or "{{" not in value:
                continue
            rendered = chevron.render(value, {"env": os.environ})
            if not rendered:
                logger.debug(
                    "Provider setting rendered empty", extra={"setting": key}
                )
            self.authentication[key] = rendered
