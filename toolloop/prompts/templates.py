"""Prompt texts for the tool-call loop, the compressor and the research agent.

Templates use ``str.format`` placeholders. Wording is part of the contract
with the model (YES/NO answers, JSON-only replies), so keep edits deliberate.
"""

from __future__ import annotations

# =============================================================================
# Tool-call loop
# =============================================================================

TOOL_SUFFICIENCY_PROMPT = """{results}

Have the tool calls above obtained enough information to solve the user's query?
Have the maximum number of tools been called to best fulfill the user's request?
Have all tool calls in your initial plan been executed successfully?

Respond with YES if ALL 3 criteria above have been met. Respond with YES or NO only."""

ORGANIZE_PROMPT = "Organize the information above into a response to the user's query."

CONTINUE_PROMPT = (
    "Call another tool to obtain more information or execute more actions. Try breaking down "
    "the user's query into steps, and find information about its constituent parts."
)

MALFORMED_LIMIT_MESSAGE = """The model has made {count} consecutive attempts with malformed tool calls.

Common issues:
1. Invalid JSON syntax in tool arguments
2. Missing required parameters
3. Type mismatches (e.g., string instead of integer)
4. Incorrect parameter names

Please review the tool schemas and try again with properly formatted tool calls."""

# =============================================================================
# Context compressor
# =============================================================================

COMPRESSION_PROMPT = """You are a compression worker. Summarise the tool result below, preserving every critical fact, figure, and citation.

Tool call schema:
{call}

Raw tool output:
{result}

Requirements:
1. Retain the essential facts, figures, URLs, commands, and conclusions.
2. Replace verbose prose with compact bullet points when possible.
3. Remove duplicated sentences or boilerplate.
4. Target 20-30% of the original length, but never exceed {threshold} tokens.
5. Output plain text only, with no additional commentary."""

# =============================================================================
# Research agent
# =============================================================================

RESEARCH_SUFFICIENCY_PROMPT = """You are about to start a multi-step research process on the user's query above.

Have you been given enough information to conduct further research on the user's query?
Do you need extra context to better conduct research on the user's query?
Do you need the user to clarify the requirements to better conduct research on the user's query?

Respond with YES if ALL 3 criteria above have been met. Alternatively, if the user has already responded to a set of follow up questions, or if they have declined a request for clarification, respond with YES. Else, respond with NO.

Respond with YES or NO only."""

CLARIFICATION_PROMPT = """You are about to start a multi-step research process on the user's query above, but you have determined that you have not been given enough information.

Ask the user for more information and context. Respond with the questions ONLY."""

EXTRACT_PROMPT = """You are about to start a multi-step research process on the user's query above.

In preparation, synthesize the user's prompt from the messages above, combining the original prompt with any extra information and requirements from follow up messages. The final, synthesized prompt should be imperative in tone, providing clear requirements and context.

Respond with the prompt ONLY."""

PLAN_PROMPT = """A user has provided the query below. Go through this query, extract insights and think about user intent, then create a step by step plan for how you would solve such a problem, where each "step" corresponds to a section in the final research report. Number each step in your plan. Think about how each section of the report interacts with other sections in a logical way.

DO NOT try to directly provide an answer. ONLY think and plan.

```user_query
{prompt}
```"""

SECTIONS_JSON_PROMPT = """Now, convert the plan above for each section in the research report into JSON.

Respond with an array of JSON objects, where each object corresponds to a section. Follow the JSON schema below.

{
  "type": "array",
  "items": {
    "type": "object",
    "properties": {
      "title": {
        "type": "string",
        "description": "The title of this section."
      },
      "description": {
        "type": "string",
        "description": "A brief, 2-3 sentence, description of this section in the research report explaining its purpose and relevance."
      },
      "isSearchNeeded": {
        "type": "boolean",
        "description": "Whether research on the web and other sources is useful for writing this section of the research report."
      }
    },
    "required": ["title", "description"]
  }
}

Respond with the array of JSON objects ONLY."""

SECTION_RESEARCH_PROMPT = """You are researching information for a section of a research report. This was the user's instruction regarding the overall report.

```user_instruction
{prompt}
```

Here are the notes you made on this section.

```section_notes
{notes}
```

Call tools to research this section until you have several relevant sources.

When research is complete, respond with a list of relevant useful sources in the format below:

Source: URL or filepath
Description: A 4-5 sentence synopsis of information extracted from the source helpful for writing the research report section.

Respond with the list of sources only."""

SOURCES_JSON_PROMPT = """```
{research}
```

Now, convert the sources above into JSON.

Respond with an array of JSON objects, where each object corresponds to a source, with a "url" string (the URL or filepath of the source) and a "text" string (the content of the source).

Respond with the array of JSON objects ONLY."""

KEY_FINDINGS_PROMPT = """You are researching information for a section of a research report. This was the user's instruction regarding the overall report.

```user_instruction
{prompt}
```

Here are the notes you made on this section.

```section_notes
{notes}
```

Here are the sites and content you found.

```section_research
{research}
```

Synthesize and summarize key findings from the research above, and write it into 2-3 sentences.

Respond with the key findings ONLY."""

DRAFT_PROMPT = """You are about to write a research report based on this user's query.

```user_query
{prompt}
```

In previous interactions, you split the report into {count} sections, and conducted research on each of the sections. Below are titles, description and research results for each section.

{sections}

Now, write the report, citing sources in Markdown links."""

LIST_DIAGRAMS_PROMPT = """Read the research report above, and determine if and where diagrams should be added to the report.

Respond with an array of JSON objects (possibly empty) describing 0-5 diagrams that should be added. Each object has a "filename" string and a "description" string; the description should include any data and figures needed for the diagram.

Respond with the array of JSON objects ONLY."""

DIAGRAM_PROMPT = """Use Mermaid markup language to draw a highly detailed diagram for the topic below. Respond with ONLY the Mermaid code.

{description}"""

FINALIZE_CRITIQUE = "Critique, then improve the research report above, making it more coherent."
FINALIZE_SOURCES = "Preserve all links and sources, while updating the numbering of sources as needed."
FINALIZE_DIAGRAMS = """These diagrams are available for the research report:

{diagrams}

Insert them into the report as Mermaid code blocks where necessary."""
FINALIZE_FORMAT = "Critique only in your reasoning process. Respond with the improved report ONLY."
