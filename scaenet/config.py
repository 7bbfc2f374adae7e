import os


DEFAULT_LEARNING_SPEED = 1e-3

# Channels scoring above this value are reported in multi-class decoding.
MULTI_CLASS_THRESHOLD = 0.35

DEFAULT_ACTIVATION = "tanh"
DEFAULT_CLASSIFIER_KIND = "fully_connected"

FORMAT_TAG = "scaenet-ffcnn"
FORMAT_VERSION = 1

LOG_LEVEL = os.environ.get("SCAENET_LOG_LEVEL", "WARNING").upper()
