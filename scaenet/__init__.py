from .convolution import Convolution
from .convolution import LAYER_KINDS
from .datablock import DataBlock
from .errors import CloneError
from .errors import IncompatibleFormatError
from .errors import ScaenetError
from .errors import StructureError
from .errors import UnreadableNetworkError
from .layer import ConvolutionLayer
from .network import FFCNN
from .scae import SCAE

__version__ = "0.1.0"
