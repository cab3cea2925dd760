"""
Prompt templates for reply scoring, report synthesis and title generation.

Templates use str.format placeholders; literal braces in the JSON
examples are doubled.
"""

SCORING_SYSTEM_PROMPT = """You evaluate replies to a social media post on behalf of the post's author.
Score each reply ONLY on how well it helps the author achieve their stated goal.
Respond with a single JSON object and nothing else."""

SCORING_USER_PROMPT = """USER'S GOAL: "{goal}"

CRITICAL RULE: Score this reply ONLY on how well it helps the user achieve the above goal.
- A reply asking a question provides NO actionable information to the goal-owner → score LOW
- A reply about an unrelated topic scores NEAR-ZERO regardless of how articulate it is
- Only replies that DIRECTLY inform the goal should score above 50 on any metric

ORIGINAL POST:
{post_text}

{audience_block}REPLY TO EVALUATE:
Author: @{username} ({follower_count:,} followers)
Text: {reply_text}

CALIBRATION:
Imagine 100 diverse replies to this post, from "lol" to detailed analyses:
- ~10% exceptional (85-100), ~25% good (60-84), ~35% medium (35-59),
  ~20% weak (15-34), ~10% poor (0-14).
Place THIS reply in that distribution and pick a precise score inside the bracket.

SCORE THESE METRICS (0-100), through the lens of the user's goal:
1. goal_relevance: how directly the reply addresses the goal
2. actionability: specific steps or information the goal-owner can act on
3. specificity: concrete details, numbers, named tools, examples
4. substantiveness: reasoning beyond a surface reaction
5. constructiveness: how much it advances the goal-owner's understanding

TAGS: one or more of feature_request, complaint, praise, question, suggestion,
personal_experience, data_point, counterpoint, agreement

MINI_SUMMARY: one short sentence with the core point (under 150 characters)

TO_BE_INCLUDED: true only if goal_relevance >= 35, substantiveness >= 25, and the
reply offers information, opinion or experience rather than only a question.

Return JSON:
{{"goal_relevance": 0, "actionability": 0, "specificity": 0, "substantiveness": 0,
  "constructiveness": 0, "tags": [], "mini_summary": "", "to_be_included": false}}"""

SUMMARY_SYSTEM_PROMPT = """You analyze replies to a social media post and write a report that helps
the post's author achieve a specific goal. Respond with a single JSON object and nothing else."""

SUMMARY_USER_PROMPT = """USER'S GOAL: "{goal}"

Every insight and recommendation must directly serve the goal above. Discard anything
that does not help the user understand or act on it.

ORIGINAL POST:
{post_text}

{audience_block}QUALIFIED REPLIES ({reply_count} total, pre-filtered for goal relevance):
{replies_section}

Include ONLY sections with genuine, meaningful content:
- executive_summary: required, 2-3 paragraphs of key findings for the goal
- key_themes: [{{"theme", "description", "reply_ids", "sentiment"}}]
- top_insights: up to 5 [{{"insight", "reply_id", "username", "why_notable"}}]
- action_items: [{{"action", "priority": "high|medium|low", "based_on": [reply_ids]}}]
- sentiment_overview: {{"overall", "breakdown": {{"positive", "negative", "neutral"}}, "notable_sentiment_shifts"}}
  (breakdown percentages sum to 100)
- hidden_gems: replies from accounts under 5000 followers with exceptional value
  [{{"reply_id", "username", "follower_count", "insight", "is_big_little_guy"}}],
  is_big_little_guy is true when follower_count < 500
- controversial_takes: [{{"reply_id", "username", "take", "counterpoint_to"}}]
- quality_note: only if reply quality was notably low

Sentiment values: positive, negative, mixed, neutral."""

SUMMARY_REPLY_BLOCK = """---
ID: {reply_id}
@{username} ({follower_count:,} followers)
Scores: goal_relevance={goal_relevance}, actionability={actionability}, specificity={specificity}, substantiveness={substantiveness}, constructiveness={constructiveness}
Tags: {tags}
Summary: {mini_summary}
Full text: {text}
---"""

TITLE_PROMPT = """Write a 3-5 word title for a report analyzing replies to this post.
The user's goal is: "{goal}"

POST:
{post_text}

Return only the title, no quotes or punctuation at the end."""


def audience_block(persona: str | None) -> str:
    if not persona:
        return ""
    return f"TARGET AUDIENCE:\n{persona}\n\n"
