"""Unit tests for keyword classification"""

from finance_ingest.domain.classification import KeywordClassifier
from finance_ingest.domain.models import TransactionIntent


def test_counterparty_keyword_sets_category(candidate_factory):
    """Test a merchant keyword decides the category"""
    candidate = candidate_factory(counterparty="Swiggy", description="INR 250 debited at Swiggy")

    result = KeywordClassifier().classify(candidate)

    assert result.category == "Food"
    assert result.matched_keyword == "swiggy"
    assert result.confidence > 0.5


def test_short_keywords_need_word_boundaries(candidate_factory):
    """Test short keywords do not fire inside longer words"""
    classifier = KeywordClassifier()

    ride = classifier.classify(candidate_factory(description="Payment for Ola ride"))
    assert ride.category == "Transport"

    store = classifier.classify(candidate_factory(description="Holas store purchase"))
    assert store.category == "Uncategorized"
    assert store.matched_keyword is None


def test_income_and_transfer_fallbacks(candidate_factory):
    """Test uncategorized income and transfers get their own buckets"""
    classifier = KeywordClassifier()

    income = candidate_factory(type="income", intent=TransactionIntent.CREDIT, description="INR 100 deposited")
    transfer = candidate_factory(type="transfer", intent=TransactionIntent.TRANSFER, description="INR 100 moved")

    assert classifier.classify(income).category == "Income"
    assert classifier.classify(transfer).category == "Transfer"


def test_income_keyword(candidate_factory):
    """Test salary credits are recognized"""
    candidate = candidate_factory(type="income", intent=TransactionIntent.CREDIT, description="Salary credited INR 90,000")

    assert KeywordClassifier().classify(candidate).category == "Salary"


def test_custom_rules(candidate_factory):
    """Test rules can be replaced wholesale"""
    classifier = KeywordClassifier(rules={"gym": "Fitness"})

    assert classifier.classify(candidate_factory(description="Gym membership")).category == "Fitness"
    assert classifier.classify(candidate_factory(description="Swiggy order")).category == "Uncategorized"
