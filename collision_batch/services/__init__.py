from collision_batch.services.pipeline import EstimatePipeline, PipelineResult
from collision_batch.services.processor import EstimateBatchProcessor

__all__ = ["EstimateBatchProcessor", "EstimatePipeline", "PipelineResult"]
