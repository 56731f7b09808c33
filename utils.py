import os, json, logging
import httpx
from dotenv import load_dotenv

from errors import CollaboratorFailure
from models import ladder_for, TOTAL_QUESTIONS

load_dotenv()

logger = logging.getLogger(__name__)

model = os.getenv("LLM_MODEL", "mistral:latest")
OLLAMA_API_URL = os.getenv("OLLAMA_API_URL", "http://localhost:11434/api/generate")
LLM_HTTP_TIMEOUT = float(os.getenv("LLM_HTTP_TIMEOUT", "120"))

SYSTEM_PROMPT = "You are an expert technical interviewer for a Full Stack Developer position (React/Node.js)."


async def llm_resp(prompt: str) -> str:
    async with httpx.AsyncClient() as client:
        try:
            resp = await client.post(
                OLLAMA_API_URL,
                json={
                    "model": model,
                    "system": SYSTEM_PROMPT,
                    "prompt": prompt,
                    "format": "json",
                    "stream": False,
                },
                timeout=LLM_HTTP_TIMEOUT,
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CollaboratorFailure(f"LLM request failed: {e}") from e
        return (data.get("response") or "").strip()


def parse_json(txt: str) -> dict:
    try:
        parsed = json.loads(txt)
    except ValueError:
        # models sometimes wrap the object in prose or code fences
        start, end = txt.find("{"), txt.rfind("}")
        if start == -1 or end <= start:
            raise CollaboratorFailure("LLM returned no JSON object")
        try:
            parsed = json.loads(txt[start:end + 1])
        except ValueError as e:
            raise CollaboratorFailure("LLM returned malformed JSON") from e
    if not isinstance(parsed, dict):
        raise CollaboratorFailure("LLM returned a non-object JSON value")
    return parsed


async def generate_question(index: int, resume_text: str, previous_questions=()) -> dict:
    difficulty, time_limit = ladder_for(index)
    prompt = f"""
Candidate's Resume: {resume_text[:3000]}

Previous questions asked: {", ".join(previous_questions) or "None"}

Generate a {difficulty} level technical question for question {index + 1} of {TOTAL_QUESTIONS}.

Guidelines:
- Easy: Basic concepts, syntax, fundamental understanding
- Medium: Practical application, problem-solving, best practices
- Hard: Complex scenarios, architectural decisions, optimization

Requirements:
- Question should be relevant to Full Stack development (React/Node.js)
- Avoid repeating previous questions
- Make it specific and practical
- Answerable within a {time_limit} second time limit

Return only valid JSON:
{{"question": "Your generated question here", "difficulty": "{difficulty}", "timeLimit": {time_limit}}}
"""
    parsed = parse_json(await llm_resp(prompt))
    question = parsed.get("question")
    if not isinstance(question, str) or not question.strip():
        raise CollaboratorFailure("LLM returned no question text")
    return {
        "question": question.strip(),
        "difficulty": parsed.get("difficulty"),
        "time_limit": parsed.get("timeLimit"),
    }


async def score_answer(question: str, answer: str, difficulty: str, time_spent: int, time_limit: int) -> dict:
    prompt = f"""
Evaluate the candidate's answer.

Question ({difficulty} level): {question}
Candidate's Answer: {answer or "(no answer)"}
Time spent: {time_spent}s out of {time_limit}s allowed

Evaluate this answer on:
1. Technical accuracy (40%)
2. Completeness (30%)
3. Clarity of explanation (20%)
4. Time management (10%)

Return only valid JSON:
{{"score": 8, "feedback": "Overall assessment of the answer", "strengths": ["strength1"], "improvements": ["area1"]}}
"""
    parsed = parse_json(await llm_resp(prompt))
    return {
        "score": parsed.get("score"),
        "feedback": parsed.get("feedback"),
        "strengths": parsed.get("strengths") or [],
        "improvements": parsed.get("improvements") or [],
    }


async def generate_summary(candidate_name: str, resume_text: str, results) -> dict:
    """
    `results` is the ordered list of dicts with question, answer, score and
    difficulty keys, one per question index.
    """
    lines = []
    for i, qa in enumerate(results, start=1):
        lines.append(f"Q{i} ({qa['difficulty']}): {qa['question']}")
        lines.append(f"Answer: {qa['answer'] or '(no answer)'}")
        lines.append(f"Score: {qa['score']}/10\n")
    prompt = f"""
Provide a final assessment of this interview.

Candidate: {candidate_name}
Resume: {resume_text[:3000]}

Interview Results:
{chr(10).join(lines)}

Provide an overall score from 1 to 10 (one decimal), an assessment paragraph,
key strengths, areas for improvement and a hiring recommendation.

Return only valid JSON:
{{"overallScore": 7.5, "summary": "Comprehensive assessment paragraph", "strengths": ["s1"], "weaknesses": ["w1"], "recommendation": "Strong hire/Hire/Consider/No hire"}}
"""
    parsed = parse_json(await llm_resp(prompt))
    return {
        "overall_score": parsed.get("overallScore"),
        "summary": parsed.get("summary"),
        "strengths": parsed.get("strengths") or [],
        "weaknesses": parsed.get("weaknesses") or [],
        "recommendation": parsed.get("recommendation"),
    }
