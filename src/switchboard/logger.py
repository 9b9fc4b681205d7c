import logging

logger = logging.getLogger("switchboard")
