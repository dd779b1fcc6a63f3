"""
Prompt templates for the Ollama text model.

Structured prompts are paired with a pydantic response model in ollama.py; the
model's JSON schema is sent as the `format` of the request.
"""

SYSTEM_PROMPT = """You are a meticulous research assistant. When you respond:
- Assume the reader is an experienced analyst; do not simplify, be precise and complete.
- Keep the answer well organized.
- Accuracy matters more than anything else: do not guess.
- Stay concise and coherent."""

TAGS_PROMPT = """The text below is one slice of a longer article.
List tags that describe what this slice is about. A tag is a single word or a
very short subject description. Most articles are about software and
technology, so prefer precise technical subjects over broad, generic ones.
Returning no tags is fine when nothing stands out.
Answer in JSON. Text:
{text}"""

CONSOLIDATE_TAGS_PROMPT = """Below is a comma separated list of tags collected from the slices of one article.
Many of them are duplicates, near-duplicates or vague. Produce a shorter,
clearer list that still describes the whole article. Fewer is better; return
at most {max_tags} tags.
Answer in JSON. Tags:
{tags}"""

SUMMARY_PROMPT = """The text below is one slice of a longer article.
Summarize what this slice says, focusing on what makes it distinct rather than
on generic context. Most articles are about software and technology. Keep it
to a single sentence if you can; an empty summary is fine when the slice has
nothing of substance.
Answer in JSON. Text:
{text}"""

CONSOLIDATE_SUMMARY_PROMPT = """Below are summaries of the slices of one article, one per line.
They overlap and repeat each other. Merge them into a single clear summary of
the whole article of at most 3 sentences.
Answer in JSON. Summaries:
{summaries}"""

SIMILAR_QUESTIONS_PROMPT = """Write {count} alternative versions of the question below that would help find
the same or closely related information. Vary the wording, the point of view
and how specific each version is.

Question:
{question}"""

RELEVANCE_PROMPT = """Decide whether the text chunk below helps answer the question.

Question: {question}

Chunk:
{chunk}

Reply with `relevant` (true or false) and a short `explanation` of your decision."""

ANSWER_PROMPT = """Answer the question using the context below. If the context is not enough to
answer, say so plainly and describe what information is missing.

Context:
{context}

Question: {question}"""
