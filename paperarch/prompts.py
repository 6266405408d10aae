"""Prompt templates for the three backend exchanges.

Every builder is a pure function: same inputs, same text.
"""

LAYOUT_STRATEGIES = (
    "Linear Pipeline",
    "Cyclic/Iterative",
    "Hierarchical Stack",
    "Parallel/Dual-Stream",
    "Central Hub",
)

INITIAL_PROMPT = "Initial"

BLUEPRINT_BEGIN = "---BEGIN PROMPT---"
BLUEPRINT_END = "---END PROMPT---"

# ═══════════════════════════════════════════════════════════════════════════
# TEMPLATES
# ═══════════════════════════════════════════════════════════════════════════

ANALYSIS_PROMPT = """\
# Role
You are the **Visual Architect** for papers submitted to {conference} and other top-tier venues. Your core skill is turning abstract paper logic into **concrete, structured, geometric visual instructions**.

# Objective
Read the paper content provided above and produce a **[VISUAL SCHEMA]**. This schema is sent directly to an AI image model, so it must use **firm physical descriptions**.

# Phase 1: Layout Strategy Selector (key step: layout decision)
Before writing the schema, analyse the paper's logic and pick the most suitable layout archetype (or a combination):
1. **Linear Pipeline**: left-to-right flow (Data Processing, Encoding-Decoding).
2. **Cyclic/Iterative**: a central looping arrow (Optimization, RL, Feedback Loops).
3. **Hierarchical Stack**: top-to-bottom or bottom-to-top stacking (Multiscale features, Tree structures).
4. **Parallel/Dual-Stream**: two parallel streams, one above the other (Multi-modal fusion, Contrastive Learning).
5. **Central Hub**: one core module connected to surrounding components (Agent-Environment, Knowledge Graphs).

# Phase 2: Schema Generation Rules
1. **Dynamic Zoning**: define 2-5 physical zones according to the chosen layout. Do not default to 3.
2. **Internal Visualization**: define the concrete "objects" inside every zone (Icons, Grids, Trees). Abstract concepts are not allowed.
3. **Explicit Connections**: for cyclic processes, state explicitly e.g. "Curved arrow looping back from Zone X to Zone Y".

# Instructions for Output
Analyze the paper and return your findings in JSON format.
The "architectureBlueprint" field must contain the "Golden Schema" starting with {begin} and ending with {end}, following the rules above.

Return JSON structure:
{{
  "title": "Short descriptive title of the paper",
  "summary": "2-3 sentence summary of the core contribution",
  "layoutStrategy": "One of: {layouts}",
  "architectureBlueprint": "The complete Golden Schema text including Style, Layout Config, Zones, and Connections",
  "keyComponents": ["List of main modules identified"]
}}
"""

GENERATION_PROMPT = """\
**Style Reference & Execution Instructions:**

1. **Art Style (Visio/Illustrator Aesthetic):**
   Generate a **professional academic architecture diagram** suitable for a top-tier computer science paper (CVPR/NeurIPS).
   * **Visuals:** Flat vector graphics, distinct geometric shapes, clean thin outlines, and soft pastel fills (Azure Blue, Slate Grey, Coral Orange).
   * **Layout:** Strictly follow the spatial arrangement defined below.
   * **Vibe:** Technical, precise, clean white background. NOT hand-drawn, NOT photorealistic, NOT 3D render, NO shadows/shading.

2. **CRITICAL TEXT CONSTRAINTS (Read Carefully):**
   * **DO NOT render meta-labels:** Do not write words like "ZONE 1", "LAYOUT CONFIGURATION", "Input", "Output", or "Container" inside the image. These are structural instructions for YOU, not text for the image.
   * **ONLY render "Key Text Labels":** Only text inside double quotes (e.g., "[Text]") listed under "Key Text Labels" should appear in the diagram.
   * **Font:** Use a clean, bold Sans-Serif font (like Roboto or Helvetica) for all labels.

3. **Visual Schema Execution:**
   Translate the following structural blueprint into the final image:

{blueprint}
"""

REFINEMENT_PROMPT = """\
Update this machine learning architecture diagram.
User Instruction: "{instruction}"
Original Specification Context: {blueprint}

Keep everything the instruction does not mention exactly as it is: same layout, same palette, same labels.
Follow the academic Visio/Illustrator aesthetic: flat vector, clean outlines, no 3D elements, legible labels.
"""


# ═══════════════════════════════════════════════════════════════════════════
# BUILDERS
# ═══════════════════════════════════════════════════════════════════════════


def build_analysis_prompt(conference):
    """Instructional text for the analysis exchange, framed for ``conference``."""
    return ANALYSIS_PROMPT.format(
        conference=getattr(conference, "value", conference),
        begin=BLUEPRINT_BEGIN,
        end=BLUEPRINT_END,
        layouts=", ".join(LAYOUT_STRATEGIES),
    )


def build_generation_prompt(blueprint):
    return GENERATION_PROMPT.format(blueprint=blueprint)


def build_refinement_prompt(instruction, blueprint):
    return REFINEMENT_PROMPT.format(instruction=instruction, blueprint=blueprint)
