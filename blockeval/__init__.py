from blockeval.blockeval_datatypes import (
    NO_SESSION, BlockEvalError, ConfigurationError, ProcessStartError, SessionStartError,
    SessionClosedError, ResultKind, SessionState, EvaluationRequest, Scalar, List,
)
from blockeval.blockeval_config import EngineConfig, load_config
from blockeval.blockeval_launch import build_launch_spec
from blockeval.blockeval_forms import CLOJURE, Dialect, ClojureDialect, build, build_wrapper
from blockeval.blockeval_classify import classify
from blockeval.blockeval_process import run_output, run_value
from blockeval.blockeval_session import Session, SessionManager, SessionRegistry
from blockeval.blockeval_dispatch import Dispatcher, EvaluationResult
from blockeval.blockeval_printer import Printer
