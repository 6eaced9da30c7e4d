"""
Account setup form: name and password for first-time users.

The password is forwarded to the identity provider and never rendered back;
only the name fields are prefilled after a failed submit.
"""

from typing import Dict, Optional

from .base import Component


class AccountSetupForm(Component):
    def __init__(
        self,
        first_name: str = "",
        last_name: str = "",
        errors: Optional[Dict[str, str]] = None,
        error: Optional[str] = None,
    ):
        self.first_name = first_name
        self.last_name = last_name
        self.errors = errors or {}
        self.error = error

    def _field(self, name: str, label: str, *, type_: str = "text", value: str = "", autocomplete: str = "") -> str:
        err = self.errors.get(name)
        err_html = f'<p class="form-error" id="{name}-error">{self.escape(err)}</p>' if err else ""
        attrs = self.attributes(
            id=name,
            name=name,
            type=type_,
            value=value if type_ != "password" else None,
            autocomplete=autocomplete or None,
            required=True,
            aria_invalid="true" if err else None,
            aria_describedby=f"{name}-error" if err else None,
        )
        return f"""
            <div class="{self.classes("form-field", has_error=bool(err))}">
                <label for="{name}">{self.escape(label)}</label>
                <input {attrs}>
                {err_html}
            </div>"""

    def render(self) -> str:
        banner = f'<div class="alert alert-error" role="alert">{self.escape(self.error)}</div>' if self.error else ""
        return f"""
        <section class="account-setup card">
            <h1>Set up your account</h1>
            <p class="text-muted">Choose your name and a password to continue.</p>
            {banner}
            <form method="post" action="/account-setup" novalidate>
                {self._field("first_name", "First Name", value=self.first_name, autocomplete="given-name")}
                {self._field("last_name", "Last Name", value=self.last_name, autocomplete="family-name")}
                {self._field("password", "Password", type_="password", autocomplete="new-password")}
                {self._field("confirm_password", "Confirm Password", type_="password", autocomplete="new-password")}
                <button type="submit" class="button button--primary">Complete Account Setup</button>
            </form>
        </section>"""
