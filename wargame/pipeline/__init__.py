"""Turn-processing pipeline.

  initialize_scenario — facilitator sets the stage at T+0.
  process_actions     — forecast every INFO/ACTION of a batch, then narrate
                        FEEDs + outcomes into one world update.

Stages:
  forecast  — one independent, bounded, timed request per INFO/ACTION
  narration — one request producing the authoritative update
  sampling  — weighted outcome selection for structured forecasts
  executor  — concurrency cap, overflow policy and timeout
"""

from .core import initialize_scenario, process_actions  # noqa: F401
from .executor import BoundedExecutor, ExecutorFull  # noqa: F401
from .forecast import ParseError, forecast_outcomes  # noqa: F401
from .narration import NarrationError, narrate  # noqa: F401
from .sampling import sample_weighted  # noqa: F401
