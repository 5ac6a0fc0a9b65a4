from modules.forms.job.effect_retry import start_effect_retry_job, retry_pending_effects

__all__ = ["start_effect_retry_job", "retry_pending_effects"]
