# rules.py
# Fixed heuristic tables behind the dashboard charts.
# None of these are derived from per-category collection data; the model only
# records a total amount per task, so the rates and the composition below are
# display approximations.

# kg CO2 offset per kg of waste collected
CO2_PER_KG = 0.5

# Split applied to a task whose type matches no bucket
DEFAULT_SPLIT = {
    "organic": 0.45,
    "recyclable": 0.35,
    "hazardous": 0.20,
}

# Months shown in the waste-collection series (current month included)
MONTH_WINDOW = 6

RECYCLING_RULES = {
    # category: assumed share recycled, assumed share of total waste, cap, target
    "Plastic": {"recycled": 0.25, "share": 0.30, "cap": 95, "target": 75},
    "Paper":   {"recycled": 0.30, "share": 0.35, "cap": 95, "target": 85},
    "Glass":   {"recycled": 0.15, "share": 0.15, "cap": 95, "target": 90},
    "Metal":   {"recycled": 0.10, "share": 0.12, "cap": 95, "target": 80},
    "Organic": {"recycled": 0.40, "share": 0.45, "cap": 100, "target": 95},
}

SUSTAINABILITY_FACTORS = {
    "energy_kwh_per_kg": 12.5,
    "water_l_per_kg": 8.2,
    "co2_kg_per_tree": 15,
}

WASTE_COMPOSITION = [
    {"name": "Organic", "value": 45, "color": "#16a34a"},
    {"name": "Recyclable", "value": 35, "color": "#22c55e"},
    {"name": "Non-Recyclable", "value": 15, "color": "#84cc16"},
    {"name": "Hazardous", "value": 5, "color": "#fbbf24"},
]
