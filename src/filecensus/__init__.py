from . import commands
from .census import Census
from .config import CensusConfig, RunContext
from .reachability import ReachabilityCache
from .resolver import RootResolver
from .worker import ScanWorker, WorkQueue, run_pool
from .sink import TempSink
from .assembler import ZipAssembler
from .reader import iter_records, summarize
