"""
ai.py — ALL LLM calls are isolated here.

This is the ONLY file that imports or calls the openai client. The
assistant talks to any OpenAI-compatible chat completions endpoint
(Groq by default, see LLM_BASE_URL); to switch providers, change config,
not code.

No streaming, no retries: one request per question, and a provider
failure is reported to the caller as a 502.
"""

import openai
from flask import Blueprint, current_app, request

from database import db
from models import AIConversation, User, Case
from schemas import AIChatRequest
from utils.auth import protect_blueprint
from utils.pagination import paginate
from utils.response import error, not_found, paginated, service_unavailable, success
from utils.validation import parse_body

ai_bp = Blueprint("ai", __name__)
protect_blueprint(ai_bp)

SYSTEM_PROMPT = (
    "You are a legal AI assistant for Hawaii attorneys. Provide helpful, accurate "
    "legal information while always reminding users to verify information and "
    "consult with qualified legal professionals. Focus on Hawaii law when applicable."
)
MAX_TOKENS = 1000
TEMPERATURE = 0.7


class AIServiceError(RuntimeError):
    pass


# ─── Provider call ────────────────────────────────────────────────────────────

def chat_completion(query: str) -> str:
    """
    Send one question to the configured chat model and return the answer text.

    Raises:
        AIServiceError if the provider call fails or returns no content
    """
    client = openai.OpenAI(
        api_key=current_app.config["LLM_API_KEY"],
        base_url=current_app.config.get("LLM_BASE_URL") or None,
        timeout=current_app.config.get("LLM_TIMEOUT_SECONDS", 30),
        max_retries=0,
    )
    try:
        response = client.chat.completions.create(
            model=current_app.config["LLM_MODEL"],
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user",   "content": query},
            ],
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
        )
    except openai.OpenAIError as exc:
        raise AIServiceError(f"Chat completion failed: {exc}") from exc

    content = response.choices[0].message.content if response.choices else None
    if not content:
        raise AIServiceError("Chat completion returned no content.")
    return content


# ════════════════════════════════════════════════════════════
#  Routes
# ════════════════════════════════════════════════════════════

@ai_bp.route("/chat", methods=["POST"])
def chat():
    """
    POST /api/ai/chat
    Body: { "query": str, "caseId"?: str, "userId"?: str }

    Returns { response }. The question and answer are stored as an
    AIConversation only when userId is given.
    """
    if not current_app.config.get("LLM_API_KEY"):
        return service_unavailable("AI assistant is not configured.")

    body = parse_body(AIChatRequest)
    problems = []
    if body.user_id and db.session.get(User, body.user_id) is None:
        problems.append({"field": "userId", "message": "User does not exist"})
    if body.case_id and db.session.get(Case, body.case_id) is None:
        problems.append({"field": "caseId", "message": "Case does not exist"})
    if problems:
        return error("Validation failed.", 400, details=problems)

    try:
        answer = chat_completion(body.query)
    except AIServiceError as exc:
        current_app.logger.error(f"AI chat failed: {exc}")
        return error("The AI assistant could not answer right now.", 502)

    if body.user_id:
        db.session.add(AIConversation(
            user_id=body.user_id,
            case_id=body.case_id,
            query=body.query,
            response=answer,
            context={"model": current_app.config["LLM_MODEL"]},
        ))
        db.session.commit()

    return success(data={"response": answer})


@ai_bp.route("/conversations/<user_id>", methods=["GET"])
def list_conversations(user_id):
    """
    GET /api/ai/conversations/<user_id>?caseId=&page=&perPage=
    Newest first.
    """
    if db.session.get(User, user_id) is None:
        return not_found("User")

    stmt = (
        db.select(AIConversation)
        .where(AIConversation.user_id == user_id)
        .order_by(AIConversation.created_at.desc())
    )
    if request.args.get("caseId"):
        stmt = stmt.where(AIConversation.case_id == request.args["caseId"])

    page = paginate(stmt)
    return paginated([c.to_dict() for c in page.items], page)
