from .rules import rules_bp
from .recommendations import recommendations_bp
from .prompts import prompts_bp
from .adaptations import adaptations_bp
