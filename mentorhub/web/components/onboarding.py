"""
Onboarding surface: one card per step with Back / Continue / Complete Setup.

Every form carries the step the page was rendered for (`from_step`). The
server derives the target from it, so a double submit cannot skip a step.
Steps that collect member details put their inputs inside the Continue form;
Back never submits them.
"""

from typing import Any, Dict, Mapping, Optional, Sequence

from mentorhub.identity_access.domain import Role
from mentorhub.onboarding.steps import NAVIGABLE_STEPS, STEP_INFO, OnboardingStep, step_position
from mentorhub.profiles.model import EXPERIENCE_LEVELS, VIDEO_TOOLS
from .base import Component

_WELCOME_TEXT = {
    Role.MENTOR: (
        "Thank you for volunteering to mentor the next generation of developers. "
        "Your experience and guidance will make a real difference."
    ),
    Role.MENTEE: (
        "You're about to start a journey of growth and learning. "
        "Let's get you set up for success."
    ),
}

_GOALS_COPY = {
    Role.MENTOR: (
        "Mentoring Objectives",
        "What skills or knowledge do you want to share? How do you want to help mentees grow?",
    ),
    Role.MENTEE: (
        "Learning Goals",
        "What skills do you want to develop? What career goals are you working towards?",
    ),
}


class OnboardingPage(Component):
    def __init__(
        self,
        step: OnboardingStep,
        role: Optional[Role] = None,
        display_name: str = "",
        error: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
        group_id: Optional[str] = None,
        field_errors: Optional[Dict[str, str]] = None,
    ):
        self.step = step
        self.role = role or Role.MENTEE
        self.display_name = display_name
        self.error = error
        self.details = dict(details or {})
        self.group_id = group_id
        self.field_errors = field_errors or {}

    def render(self) -> str:
        info = STEP_INFO[self.step]
        position = step_position(self.step)
        total = len(NAVIGABLE_STEPS)
        if position is not None:
            progress = f'<p class="onboarding-progress">Step {position} of {total}</p>'
            value = position
        else:
            progress = '<p class="onboarding-progress">Ready to go</p>'
            value = total
        error_html = (
            f'<div class="alert alert-error" role="alert">{self.escape(self.error)}</div>' if self.error else ""
        )
        return f"""
        <section class="onboarding card" data-step="{self.step.value}">
            {progress}
            <progress class="progress-bar" max="{total}" value="{value}">{value} / {total}</progress>
            {self._render_step_list()}
            <h1>{self.escape(info.title)}</h1>
            <p class="text-muted">{self.escape(info.description)}</p>
            {self._render_body()}
            {error_html}
            <div class="onboarding-actions">
                {self._render_back()}
                {self._render_forward()}
            </div>
        </section>"""

    def _render_step_list(self) -> str:
        items = []
        for step in NAVIGABLE_STEPS:
            cls = self.classes("step", done=step < self.step, current=step is self.step)
            items.append(f'<li class="{cls}">{self.escape(STEP_INFO[step].title)}</li>')
        return f'<ol class="onboarding-steps">{"".join(items)}</ol>'

    def _render_body(self) -> str:
        if self.step is OnboardingStep.WELCOME:
            greeting = f"Welcome, {self.escape(self.display_name)}!" if self.display_name else "Welcome!"
            text = _WELCOME_TEXT.get(self.role, _WELCOME_TEXT[Role.MENTEE])
            return f"<h2>{greeting}</h2><p>{self.escape(text)}</p>"
        if self.step is OnboardingStep.GROUP_ASSIGNMENT:
            if self.group_id:
                return (
                    '<div class="group-card"><h2>Your Group</h2>'
                    f'<p>You have been assigned to group <strong>{self.escape(self.group_id)}</strong>.</p></div>'
                )
            return (
                '<div class="group-card"><h2>Your Group</h2>'
                "<p>You have not been assigned to a group yet. An admin will place you shortly; "
                "you can continue in the meantime.</p></div>"
            )
        if self.step is OnboardingStep.COMPLETED:
            return "<p>You have finished every step. Complete setup to enter the program.</p>"
        return ""

    # Detail inputs live inside the Continue form.

    def _value(self, name: str) -> str:
        value = self.details.get(name)
        if isinstance(value, (list, tuple)):
            return ", ".join(str(v) for v in value)
        return "" if value is None else str(value)

    def _field_wrap(self, name: str, label: str, control: str, hint: str = "") -> str:
        err = self.field_errors.get(name)
        err_html = f'<p class="form-error" id="{name}-error">{self.escape(err)}</p>' if err else ""
        hint_html = f'<p class="form-hint">{self.escape(hint)}</p>' if hint else ""
        return f"""
                    <div class="{self.classes("form-field", has_error=bool(err))}">
                        <label for="{name}">{self.escape(label)}</label>
                        {control}
                        {hint_html}
                        {err_html}
                    </div>"""

    def _error_attrs(self, name: str) -> Dict[str, Optional[str]]:
        err = name in self.field_errors
        return {"aria_invalid": "true" if err else None, "aria_describedby": f"{name}-error" if err else None}

    def _input(self, name: str, label: str, *, type_: str = "text", placeholder: str = "", hint: str = "") -> str:
        attrs = self.attributes(
            id=name,
            name=name,
            type_=type_,
            value=self._value(name),
            placeholder=placeholder or None,
            **self._error_attrs(name),
        )
        return self._field_wrap(name, label, f"<input {attrs}>", hint)

    def _textarea(self, name: str, label: str, *, placeholder: str = "") -> str:
        attrs = self.attributes(id=name, name=name, rows="4", placeholder=placeholder or None, **self._error_attrs(name))
        return self._field_wrap(name, label, f"<textarea {attrs}>{self.escape(self._value(name))}</textarea>")

    def _select(self, name: str, label: str, options: Sequence[str], prompt: str) -> str:
        current = self._value(name)
        opts = [f'<option value="">{self.escape(prompt)}</option>']
        for option in options:
            selected = " selected" if option == current else ""
            opts.append(f'<option value="{self.escape(option)}"{selected}>{self.escape(option)}</option>')
        attrs = self.attributes(id=name, name=name, **self._error_attrs(name))
        return self._field_wrap(name, label, f"<select {attrs}>{''.join(opts)}</select>")

    def _render_fields(self) -> str:
        if self.step is OnboardingStep.PROFILE_SETUP:
            return "".join(
                [
                    self._textarea("bio", "Bio", placeholder="Tell us about your background and interests..."),
                    self._input(
                        "skills",
                        "Skills",
                        placeholder="React, Node.js, Python, etc.",
                        hint="Separate multiple skills with commas",
                    ),
                    self._select("experience", "Experience Level", EXPERIENCE_LEVELS, "Select your experience level"),
                    self._input(
                        "linkedin_url", "LinkedIn Profile", type_="url", placeholder="https://linkedin.com/in/yourname"
                    ),
                    self._input(
                        "github_url", "GitHub Profile", type_="url", placeholder="https://github.com/yourusername"
                    ),
                    self._input("discord_username", "Discord Username", placeholder="username#1234"),
                ]
            )
        if self.step is OnboardingStep.GOAL_SETTING:
            label, placeholder = _GOALS_COPY.get(self.role, _GOALS_COPY[Role.MENTEE])
            return self._textarea("goals", label, placeholder=placeholder) + self._textarea(
                "expectations",
                "Program Expectations",
                placeholder="What are you hoping to get out of this program? Any specific concerns or questions?",
            )
        if self.step is OnboardingStep.TOOL_SETUP:
            return self._select("preferred_video_tool", "Video Conferencing", VIDEO_TOOLS, "Select video tool")
        return ""

    def _hidden_step(self) -> str:
        return f'<input type="hidden" name="from_step" value="{self.step.value}">'

    def _render_back(self) -> str:
        if self.step is OnboardingStep.WELCOME:
            return ""
        return f"""
                <form method="post" action="/onboarding/retreat">
                    {self._hidden_step()}
                    <button type="submit" class="button button--secondary">Back</button>
                </form>"""

    def _render_forward(self) -> str:
        if self.step in (OnboardingStep.READINESS_CHECK, OnboardingStep.COMPLETED):
            return f"""
                <form method="post" action="/onboarding/complete">
                    {self._hidden_step()}
                    <button type="submit" class="button button--primary">Complete Setup</button>
                </form>"""
        return f"""
                <form method="post" action="/onboarding/advance" class="onboarding-details">
                    {self._hidden_step()}
                    {self._render_fields()}
                    <button type="submit" class="button button--primary">Continue</button>
                </form>"""
