"""Unit tests for message normalization"""

from finance_ingest.domain.models import SourceType, UnifiedMessage
from finance_ingest.domain.normalization import MessageNormalizationEngine


def normalize(text: str):
    message = UnifiedMessage(raw_text=text, source_type=SourceType.SMS, sender_identifier="VM-HDFCBK")
    return MessageNormalizationEngine().normalize(message)


def test_urls_removed():
    """Test URLs are stripped and recorded as noise"""
    result = normalize("Rs 500 debited. Details at https://bank.example/txn/42")

    assert "https" not in result.clean_text
    assert "urls_removed" in result.processing_metadata.normalizations
    assert "https://bank.example/txn/42" in result.processing_metadata.noise_removed


def test_otp_removed_only_near_otp_keywords():
    """Test OTP-like numbers go only when an OTP keyword is nearby"""
    otp = normalize("Your OTP is 482913. Do not share it.")
    assert "482913" not in otp.clean_text
    assert "otp_removed" in otp.processing_metadata.normalizations

    amount = normalize("INR 5000 debited from account 4321")
    assert "5000" in amount.clean_text
    assert "4321" in amount.clean_text
    assert "otp_removed" not in amount.processing_metadata.normalizations


def test_email_kept_when_identifying_account():
    """Test emails near account keywords survive; others are stripped"""
    kept = normalize("Statement sent to your registered email john@example.com")
    assert "john@example.com" in kept.clean_text
    assert "emails_removed" not in kept.processing_metadata.normalizations

    stripped = normalize("Write to support@bank.com for help")
    assert "support@bank.com" not in stripped.clean_text
    assert "emails_removed" in stripped.processing_metadata.normalizations


def test_hashtags_and_whitespace():
    """Test hashtags are dropped and whitespace collapsed"""
    result = normalize("INR 200   spent   at store #SafeBanking\n\nthanks")

    assert result.clean_text == "INR 200 spent at store thanks"
    assert "#SafeBanking" in result.processing_metadata.noise_removed


def test_abbreviations_expanded():
    """Test banking abbreviations are spelled out case-insensitively"""
    result = normalize("TXN of AMT Rs.100 on A/C XX12 ref ABC")

    assert result.clean_text == "transaction of amount Rs.100 on account XX12 reference ABC"


def test_currency_symbols_standardized():
    """Test currency symbols become ISO codes with a trailing space"""
    result = normalize("Paid ₹ 1,250 and $30 and €5")

    assert result.clean_text == "Paid INR 1,250 and USD 30 and EUR 5"
    assert "currency_standardized" in result.processing_metadata.normalizations


def test_promotional_sentences_dropped():
    """Test sentences with promotional keywords are removed, others kept"""
    result = normalize("INR 500 debited from account XX1234. Get 10% cashback on your next order! Thanks.")

    assert result.clean_text == "INR 500 debited from account XX1234. Thanks."
    assert "marketing_text_removed" in result.processing_metadata.normalizations
    assert "Get 10% cashback on your next order!" in result.processing_metadata.noise_removed


def test_dates_left_untouched():
    """Test date substrings pass through for the detection engine to parse"""
    result = normalize("INR 75 spent on 15/12/2025")

    assert "15/12/2025" in result.clean_text
    assert "dates_preserved" in result.processing_metadata.normalizations


def test_original_text_preserved():
    """Test the raw text is carried alongside the cleaned text"""
    raw = "Amount ₹5,000 debited #alert"
    result = normalize(raw)

    assert result.original_raw_text == raw
    assert result.message.raw_text == raw
    assert result.sender_identifier == "VM-HDFCBK"


def test_extract_helpers():
    """Test number and date-string helpers"""
    engine = MessageNormalizationEngine()

    assert engine.extract_numbers("INR 1,250.50 and 30") == [1250.5, 30.0]
    assert engine.extract_date_strings("on 15 Dec 2025 and 2025-12-16") == ["2025-12-16", "15 Dec 2025"]
