"""Centralized constants for nomad-deployer."""

# Listener
PLAIN_HTTP_PORT = 8080
TLS_HTTP_PORT = 8081

# Bounded queue between the listener and the update worker
NOTIFICATION_QUEUE_CAPACITY = 5

# Nomad
DEFAULT_NOMAD_ADDR = "http://127.0.0.1:4646"
NOMAD_TOKEN_HEADER = "X-Nomad-Token"
JOB_TYPE_SERVICE = "service"

# Task config key holding the container image
IMAGE_CONFIG_KEY = "image"

# Largest POST body read in full; bigger bodies are treated as undecodable
MAX_NOTIFICATION_BYTES = 64 * 1024 * 1024
