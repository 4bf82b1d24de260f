from abc import ABC, abstractmethod
from decimal import Decimal

from expense_categorizer.models import Suggestion


class Classifier(ABC):
    @abstractmethod
    def classify(self, description: str, notes: str = "", amount: Decimal = Decimal("0")) -> Suggestion:
        """Suggest a category for one transaction. Never returns None."""
        pass

    @abstractmethod
    def rank(self, description: str, notes: str = "", amount: Decimal = Decimal("0")) -> list[Suggestion]:
        """All scored candidates, best first."""
        pass
