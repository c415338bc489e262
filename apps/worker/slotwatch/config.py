"""
Settings from environment variables.

All config is loaded via Pydantic Settings with the SLOTWATCH_ prefix.
Built once in main and handed to each component; nothing else reads the
environment.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Run
    mode: str = "calendar"  # "calendar" | "listing"

    # Target site
    url: str = ""
    listing_url: str = ""

    # 2Captcha
    captcha_api_key: str = ""
    captcha_base_url: str = "https://2captcha.com"
    captcha_request_timeout_seconds: int = 30
    captcha_initial_delay_seconds: float = 15.0
    captcha_poll_interval_seconds: float = 1.5
    captcha_poll_retries: int = 30
    captcha_max_attempts: int = 3
    captcha_keep_images: bool = True
    captcha_audit_dir: str = ""

    # Twilio SMS
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number_from: str = ""
    twilio_phone_number_to: str = ""

    # Date filter; unset means every date is interesting
    earlier_than_day: int | None = None
    earlier_than_month: int | None = None

    # Browser
    browser_headless: bool = True
    browser_timeout_seconds: float = 30.0
    captcha_outcome_timeout_seconds: float = 30.0

    # Site markup
    captcha_selector: str = "captcha > div"
    captcha_input_selector: str = "#appointment_captcha_month_captchaText"
    captcha_submit_selector: str = "#appointment_captcha_month_appointment_showMonth"
    captcha_error_selector: str = "#message"
    captcha_success_selector: str = "h4"
    appointment_date_selector: str = "h4"
    redirect_link_selector: str = "a[href*='appointment_showMonth']"
    slot_selector: str = "a.arrow"
    next_page_selector: str = "a[href*='appointment_showMonth'] img[src*='go-next']"

    model_config = {
        "env_file": ".env",
        "env_prefix": "SLOTWATCH_",
    }
