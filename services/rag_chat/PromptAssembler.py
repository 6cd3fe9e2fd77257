"""Builds the generation prompt from retrieved context under a token budget."""

from shared.helper.HelperConfig import HelperConfig
from shared.helper.text_helper import estimate_tokens
from shared.models.context import ContextItem, RetrievedContext, UserContext
from shared.models.conversation import ChatMessage, Intent

DEFAULT_TOKEN_BUDGET = 3500
MAX_CONTEXT_ITEMS = 5
MAX_HISTORY_TURNS = 5
SUMMARY_CHARS = 200
CONDENSED_CHARS = 100

PERSONA_PROMPT = """You are Edutu, an AI opportunity coach specifically designed to help young African professionals (ages 16-30) discover and pursue educational and career opportunities.

Your role is to:
- Help users find scholarships, internships, and educational opportunities
- Provide career guidance and skill development advice
- Create personalized learning roadmaps
- Connect users with relevant resources and communities
- Provide motivation and actionable guidance

Always be encouraging, specific, and actionable in your responses. Focus on opportunities available in Africa or globally accessible to African youth. When possible, suggest concrete next steps and resources.

Keep responses conversational, helpful, and motivating. Use the provided context to give personalized recommendations."""

RESPONSE_GUIDELINES = """Please provide a helpful, personalized response based on the context above. Be specific and actionable, referencing relevant opportunities, learning plans, or conversation history when appropriate.

Response Guidelines:
1. Address the user's specific question directly
2. Use relevant context from opportunities/learning plans when applicable
3. Provide actionable next steps
4. Maintain a supportive, encouraging tone
5. Keep responses concise but comprehensive
6. Include specific details from the context when relevant"""


def _excerpt(text: str, limit: int) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


class PromptAssembler:
    """Deterministic prompt builder.

    Section order is fixed and empty sections are left out entirely. When the
    estimated prompt size exceeds the budget, trailing items are dropped from
    the recent-history section first, then from learning plans, then from
    opportunities.
    """

    def __init__(self, helper_config: HelperConfig, token_budget: int | None = None):
        self.logging = helper_config.get_logger()
        self.token_budget = int(
            token_budget
            if token_budget is not None
            else helper_config.get_number_val("PROMPT_TOKEN_BUDGET", default=DEFAULT_TOKEN_BUDGET)
        )

    ##########################################
    ############### SECTIONS #################
    ##########################################

    @staticmethod
    def _opportunities_section(items: list[ContextItem]) -> str | None:
        if not items:
            return None
        lines = ["## Available Opportunities:"]
        for index, item in enumerate(items, start=1):
            meta = item.metadata
            lines.append(f"{index}. **{meta.get('title') or 'Untitled'}**")
            if meta.get("provider"):
                lines.append(f"   Provider: {meta['provider']}")
            if meta.get("category"):
                lines.append(f"   Category: {meta['category']}")
            lines.append(f"   Summary: {_excerpt(item.text_content, SUMMARY_CHARS)}")
        return "\n".join(lines)

    @staticmethod
    def _learning_plans_section(items: list[ContextItem]) -> str | None:
        if not items:
            return None
        lines = ["## Relevant Learning Plans:"]
        for index, item in enumerate(items, start=1):
            meta = item.metadata
            lines.append(f"{index}. **{meta.get('title') or 'Untitled'}**")
            if meta.get("duration"):
                lines.append(f"   Duration: {meta['duration']}")
            if meta.get("difficulty"):
                lines.append(f"   Difficulty: {meta['difficulty']}")
            if meta.get("skills"):
                lines.append(f"   Skills: {', '.join(meta['skills'])}")
            lines.append(f"   Overview: {_excerpt(item.text_content, SUMMARY_CHARS)}")
        return "\n".join(lines)

    @staticmethod
    def _recent_history_section(items: list[ContextItem]) -> str | None:
        if not items:
            return None
        lines = ["## Recent Conversation Context:"]
        for item in items:
            role = item.metadata.get("message_type") or "message"
            lines.append(f"- {role}: {_excerpt(item.text_content, CONDENSED_CHARS)}")
        return "\n".join(lines)

    @staticmethod
    def _profile_section(user_context: UserContext) -> str | None:
        profile = user_context.profile
        if not profile:
            return None
        lines = ["## User Profile:"]
        if profile.get("educationLevel"):
            lines.append(f"- Education Level: {profile['educationLevel']}")
        interests = profile.get("careerInterests") or []
        if interests:
            lines.append(f"- Career Interests: {', '.join(interests)}")
        lines.append(f"- Learning Style: {user_context.learning_style}")
        lines.append(f"- Current Skill Level: {user_context.skill_level}")
        return "\n".join(lines)

    @staticmethod
    def _goals_section(user_context: UserContext) -> str | None:
        if not user_context.active_goals:
            return None
        lines = ["## Current Goals:"]
        for goal in user_context.active_goals:
            lines.append(f"- {goal.title}: {goal.description or 'No description'}")
        return "\n".join(lines)

    @staticmethod
    def _conversation_section(short_history: list[ChatMessage]) -> str | None:
        recent = short_history[-MAX_HISTORY_TURNS:]
        if not recent:
            return None
        return "## Conversation History:\n" + "\n".join(f"{msg.role}: {msg.content}" for msg in recent)

    @staticmethod
    def _intent_section(intent: Intent) -> str:
        return "\n".join([
            "## Message Intent Analysis:",
            f"- Primary Intent: {intent.primary}",
            f"- Key Entities: {', '.join(intent.entities) if intent.entities else 'none'}",
            f"- Urgency: {intent.urgency}",
            f"- Action Required: {'yes' if intent.action_required else 'no'}",
        ])

    ##########################################
    ############### ASSEMBLE #################
    ##########################################

    def _render(
        self,
        user_message: str,
        opportunities: list[ContextItem],
        learning_plans: list[ContextItem],
        recent_history: list[ContextItem],
        user_context: UserContext,
        intent: Intent,
        short_history: list[ChatMessage],
    ) -> str:
        sections = [
            PERSONA_PROMPT,
            self._opportunities_section(opportunities),
            self._learning_plans_section(learning_plans),
            self._recent_history_section(recent_history),
            self._profile_section(user_context),
            self._goals_section(user_context),
            self._conversation_section(short_history),
            f"## Current User Message:\n{user_message}",
            self._intent_section(intent),
            RESPONSE_GUIDELINES,
        ]
        return "\n\n".join(section for section in sections if section)

    def assemble(
        self,
        user_message: str,
        context: RetrievedContext,
        intent: Intent,
        short_history: list[ChatMessage] | None = None,
    ) -> str:
        """Build the prompt for one user message.

        Args:
            user_message (str): The current message.
            context (RetrievedContext): Everything the retriever found.
            intent (Intent): Classification of the message.
            short_history (list[ChatMessage] | None): Conversation turns sent by the caller; the last 5 are used.

        Returns:
            str: The prompt, within the token budget unless even the fixed sections exceed it.
        """
        short_history = list(short_history or [])
        opportunities = list(context.opportunities[:MAX_CONTEXT_ITEMS])
        learning_plans = list(context.learning_plans[:MAX_CONTEXT_ITEMS])
        recent_history = list(context.chat_history[-MAX_HISTORY_TURNS:])

        prompt = self._render(
            user_message, opportunities, learning_plans, recent_history,
            context.user_context, intent, short_history,
        )
        # trim order: recent history, then learning plans, then opportunities
        for trimmable in (recent_history, learning_plans, opportunities):
            while trimmable and estimate_tokens(prompt) > self.token_budget:
                trimmable.pop()
                prompt = self._render(
                    user_message, opportunities, learning_plans, recent_history,
                    context.user_context, intent, short_history,
                )

        if estimate_tokens(prompt) > self.token_budget:
            self.logging.warning(
                "Prompt still exceeds the token budget after trimming (%d > %d estimated tokens).",
                estimate_tokens(prompt), self.token_budget,
            )
        return prompt
