from typing import Dict

ARXIV_API_URL = "http://export.arxiv.org/api/query"

SORT_BY_OPTIONS = ("relevance", "lastUpdatedDate", "submittedDate")
SORT_ORDER_OPTIONS = ("ascending", "descending")

# Categories offered for subscription filters and advanced search
ARXIV_CATEGORIES: Dict[str, str] = {
    # Computer Science
    "cs.AI": "Artificial Intelligence",
    "cs.CL": "Computation and Language (NLP)",
    "cs.CV": "Computer Vision",
    "cs.LG": "Machine Learning",
    "cs.NE": "Neural and Evolutionary Computing",
    "cs.RO": "Robotics",
    "cs.IR": "Information Retrieval",
    "cs.CR": "Cryptography and Security",
    "cs.DC": "Distributed Computing",
    "cs.DS": "Data Structures and Algorithms",
    "cs.SE": "Software Engineering",
    "cs.HC": "Human-Computer Interaction",
    "cs.PL": "Programming Languages",
    # Statistics
    "stat.ML": "Machine Learning (Statistics)",
    "stat.TH": "Statistics Theory",
    # Mathematics
    "math.OC": "Optimization and Control",
    "math.ST": "Statistics Theory (Math)",
    # Physics and others
    "quant-ph": "Quantum Physics",
    "physics.comp-ph": "Computational Physics",
    "q-bio.NC": "Neurons and Cognition",
    "eess.SP": "Signal Processing",
    "econ.EM": "Econometrics",
}

def get_category_description(code: str) -> str:
    return ARXIV_CATEGORIES.get(code, code)
