from parkwatch.services.notifier_config import NotifierConfig
from parkwatch.services.batch_runner import BatchRunner, RunReport

__all__ = ["NotifierConfig", "BatchRunner", "RunReport"]
