"""Parse f(x, y), sample it on a grid and turn it into sorted, colored screen-space triangles."""
from .colorizer import DEFAULT_RAMP, ColorRamp, DepthColorizer
from .config import Domain, GraphSettings, ViewState
from .errors import ConfigError, ParseError
from .evaluator import evaluate, evaluate_grid
from .expression import CompiledExpression, parse, try_parse
from .mesh import assemble, assemble_points, assemble_wireframe
from .pipeline import GraphSession, render_frame
from .sampler import BackgroundSampler, Grid, sample
from .transform import ViewTransform, project

__version__ = "0.1.0"
