"""
Login flow for the reservation site, driven through the browser capability.
"""

import asyncio
from typing import Awaitable, Callable, List

import structlog

from browser.capability import BrowserCapability
from monitor.errors import AuthenticationError, CapabilityError, CapabilityUnavailableError
from monitor.models import Credentials

logger = structlog.get_logger(__name__)

LOGIN_LINK_SELECTORS: List[str] = ["a:has-text(\"Login\")", "a:has-text(\"Log in\")", "[href*=\"login\"]", "text=Login"]
EMAIL_INPUT_SELECTORS: List[str] = ["input[type=\"email\"]", "input[name*=\"email\" i]", "input[name*=\"user\" i]"]
PASSWORD_INPUT_SELECTORS: List[str] = ["input[type=\"password\"]"]
SUBMIT_SELECTORS: List[str] = ["button:has-text(\"Log in\")", "button:has-text(\"Login\")", "button[type=\"submit\"]", "input[type=\"submit\"]"]


class SiteAuthenticator:
    """Logs a browser session into the reservation site."""

    def __init__(
        self,
        base_url: str,
        login_url: str,
        page_load_timeout_ms: int = 20000,
        selector_timeout_ms: int = 3000,
        post_login_delay_ms: int = 3000,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.base_url = base_url
        self.login_url = login_url
        self.page_load_timeout_ms = page_load_timeout_ms
        self.selector_timeout_ms = selector_timeout_ms
        self.post_login_delay_ms = post_login_delay_ms
        self.sleep = sleep
        self.logger = logger.bind(component="site_authenticator")

    async def __call__(self, browser: BrowserCapability, credentials: Credentials) -> None:
        await self.login(browser, credentials)

    async def login(self, browser: BrowserCapability, credentials: Credentials) -> None:
        """
        Log in with the given credentials.

        Raises:
            AuthenticationError: If any step of the login flow fails
            CapabilityUnavailableError: If the browser session is lost
        """
        self.logger.info("Logging in", base_url=self.base_url)
        try:
            await browser.navigate(self.base_url, timeout=self.page_load_timeout_ms)

            login_link = await browser.locate(LOGIN_LINK_SELECTORS, timeout=self.selector_timeout_ms)
            if login_link is not None:
                await browser.click(login_link)
                await browser.wait_for_load_settled(timeout=self.page_load_timeout_ms)
            else:
                self.logger.info("Login link not found, opening login page directly", login_url=self.login_url)
                await browser.navigate(self.login_url, timeout=self.page_load_timeout_ms)

            email_input = await browser.locate(EMAIL_INPUT_SELECTORS, timeout=self.selector_timeout_ms)
            password_input = await browser.locate(PASSWORD_INPUT_SELECTORS, timeout=self.selector_timeout_ms)
            if email_input is None or password_input is None:
                raise AuthenticationError("Login form not found")

            await browser.fill(email_input, credentials.username)
            await browser.fill(password_input, credentials.password)

            submit = await browser.locate(SUBMIT_SELECTORS, timeout=self.selector_timeout_ms)
            if submit is None:
                raise AuthenticationError("Login submit button not found")
            await browser.click(submit)
            await browser.wait_for_load_settled(timeout=self.page_load_timeout_ms)

        except CapabilityUnavailableError:
            raise
        except CapabilityError as e:
            self.logger.error("Login failed", error=str(e))
            raise AuthenticationError(f"Login failed: {e}") from e

        await self.sleep(self.post_login_delay_ms / 1000)
        self.logger.info("Login successful")
