"""certgen constants."""
import logging
import os
from typing import Any
from typing import Dict

from acme import challenges

CLI_DEFAULTS: Dict[str, Any] = dict(  # noqa
    config_files=[
        "/etc/certgen/cli.ini",
        os.path.join(os.environ.get("XDG_CONFIG_HOME", "~/.config"),
                     "certgen", "cli.ini"),
    ],

    verb="issue",
    verbose_count=0,
    quiet=False,
    debug=False,
    max_log_backups=10,

    domains=[],
    cert_name=None,
    email=None,
    server="https://acme-v02.api.letsencrypt.org/directory",
    staging=False,
    no_verify_ssl=False,
    rsa_key_size=2048,

    private_key=None,
    private_key_in_records=False,
    challenge_dir="",
    output_cert_dir="certificates",
    records_path="certgen-records.json",
    base_dir=".",
    logs_dir="/var/log/certgen",

    http01_port=challenges.HTTP01Response.PORT,
    http01_address="",
)
STAGING_URI = "https://acme-staging-v02.api.letsencrypt.org/directory"

ENV_PREFIX = "CERTGEN_"
"""Prefix of environment variables that can set any long option."""

EPHEMERAL_ENV_MARKER = "DYNO"
"""Environment variable present on ephemeral dynos (Heroku)."""

POLL_INTERVAL = 1
"""Seconds between two status polls."""

MAX_POLL_ATTEMPTS = 10
"""Number of status fetches before giving up on a pending resource."""

PUBLISH_DELAY = 2
"""Seconds to wait after publishing a challenge response."""

KEY_FILENAME = "key.pem"
FULLCHAIN_FILENAME = "fullchain.pem"

CHALLENGE_RECORD = "challenge"
"""Name of the persisted record holding the challenge response."""

SETTINGS_RECORD = "settings"
"""Name of the persisted record holding the private key."""

QUIET_LOGGING_LEVEL = logging.ERROR
"""Logging level to use in quiet mode."""

DEFAULT_LOGGING_LEVEL = logging.INFO
"""Default logging level to use when not in quiet mode."""

LOG_FILENAME = "certgen.log"
