import logging

import google.generativeai as genai
import graphviz
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from errors import TracerError
from js_instrumenter import instrument_tree
from js_syntax import iter_child_nodes, parse_program
from js_tracer import JSTracer
from settings import load_settings
from trace_reducer import error_frame

settings = load_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Gemini API setup (Only used for Error Explanations)
if settings.gemini_api_key:
    try:
        genai.configure(api_key=settings.gemini_api_key)
    except Exception as e:
        logger.warning("Error configuring Gemini API: %s", e)

tracer = JSTracer(settings)


class TraceRequest(BaseModel):
    code: str


class CodeRequest(BaseModel):
    code: str
    instrumented: bool = False


class ErrorRequest(BaseModel):
    code: str
    error_details: dict


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/api/code/run")
def run_code(request: TraceRequest):
    try:
        logs = tracer.run(request.code)
    except TracerError as e:
        logs = [error_frame(e.message).to_dict()]
    except Exception as e:
        logger.exception("Tracing failed unexpectedly")
        logs = [error_frame(f"Internal tracer error: {e}").to_dict()]
    return {"logs": logs}


# --- Error explanations ---
LOCAL_HINTS = {
    "ReferenceError": "A name is used that was never declared, or it is used before its declaration runs.",
    "TypeError": "A value was used in a way its type does not allow, such as calling something that is "
                 "not a function or reading a property of undefined/null.",
    "SyntaxError": "The code could not be parsed. Look for a missing bracket, parenthesis or comma near the "
                   "reported line.",
    "RangeError": "A value was out of its allowed range; very deep recursion is the usual cause.",
    "Execution timed out": "The program kept running past its budget. Check that every loop can end and that "
                           "recursion has a base case.",
}


def local_explanation(message):
    for prefix, hint in LOCAL_HINTS.items():
        if message.startswith(prefix):
            return f"{hint} ({message})"
    return f"The program stopped with: {message}"


@app.post("/get-error-explanation")
def get_error_explanation(request: ErrorRequest):
    message = str(request.error_details.get("error_message") or request.error_details.get("error") or "")
    if not settings.gemini_api_key:
        return {"explanation": local_explanation(message)}
    try:
        model = genai.GenerativeModel(settings.gemini_model)
        prompt = f"""
        You are an expert JavaScript programming tutor.
        Explain this error in simple terms:
        Code: {request.code}
        Error: {message} on line {request.error_details.get('line_number', request.error_details.get('line'))}
        """
        response = model.generate_content(prompt)
        return {"explanation": response.text}
    except Exception as e:
        logger.warning("AI Generation Error: %s", e)
        return {"explanation": local_explanation(message)}


# --- AST Visualization Logic ---
class ASTVisualizer:
    def __init__(self):
        self.dot = graphviz.Digraph(comment="Abstract Syntax Tree")
        self.dot.attr('node', shape='box', style='rounded,filled', fillcolor='lightblue')
        self.dot.attr('edge', color='gray40')
        self.node_counter = 0

    def _get_node_label(self, node: dict) -> str:
        label = node["type"]
        if node.get("id") and node["id"].get("type") == "Identifier":
            label += f"\\n(name='{node['id']['name']}')"
        elif node["type"] == "Identifier":
            label += f"\\n(name='{node['name']}')"
        elif node["type"] == "Literal":
            label += f"\\n(value={node.get('raw')})"
        elif "operator" in node:
            label += f"\\n(op='{node['operator']}')"
        return label

    def visit(self, node: dict) -> str:
        current_id = str(self.node_counter)
        self.node_counter += 1
        self.dot.node(current_id, label=self._get_node_label(node))
        for child in iter_child_nodes(node):
            child_id = self.visit(child)
            self.dot.edge(current_id, child_id)
        return current_id


@app.post("/get-ast-visualization")
def get_ast_visualization(request: CodeRequest):
    try:
        tree = parse_program(request.code)
        if request.instrumented:
            instrument_tree(tree, request.code)
        visualizer = ASTVisualizer()
        visualizer.visit(tree)
        svg_data = visualizer.dot.pipe(format='svg')
        return {"svg_data": svg_data.decode('utf-8')}
    except TracerError as e:
        return {"error": f"Invalid JavaScript Code: {e.message}"}
    except Exception as e:
        logger.exception("AST visualization failed")
        return {"error": f"An unexpected error occurred: {e}"}
