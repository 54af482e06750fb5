"""QA scorer: weighted sub-scores, genre rules and the pass/fail gate."""
from grooveforge.services.qa.rules import GenreRules, rules_for
from grooveforge.services.qa.scorer import QAReport, SubScores, score_groove

__all__ = ["GenreRules", "QAReport", "SubScores", "rules_for", "score_groove"]
