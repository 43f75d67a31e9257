from .boundary import *  # noqa
from .config import *  # noqa
from .deformation import *  # noqa
from .fields import *  # noqa
from .locate import *  # noqa
from .monitor import *  # noqa
from .ode import *  # noqa
from .pde import *  # noqa
from .tangling import *  # noqa
from .tracker import *  # noqa
from .triangulation import *  # noqa
