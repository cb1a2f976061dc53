"""
Sample dataset for testing tabula-agents.
Simulates an uploaded sales CSV. Every cell is text, as after ingestion.
"""

SAMPLE_CSV = """name,region,category,status,revenue,cost,units,month
Alice,West,Electronics,completed,1200,700,3,Jan
Bob,East,Clothing,pending,340,210,5,Jan
Carol,West,Electronics,completed,890,520,2,Feb
Dave,North,Food,cancelled,150,90,10,Feb
Eve,South,Electronics,completed,2100,1300,1,Mar
Frank,East,Clothing,completed,620,300,8,Mar
Grace,West,Food,pending,95,60,15,Apr
Hank,North,Electronics,completed,1750,1100,2,Apr
Ivy,South,Clothing,pending,480,250,6,May
Jack,East,Food,completed,230,140,20,May
Karen,West,Electronics,cancelled,560,400,1,Jun
Leo,North,Clothing,completed,910,450,7,Jun
Mia,South,Food,completed,310,170,12,Jul
Ned,East,Electronics,pending,1400,900,3,Jul
Olivia,West,Clothing,completed,740,380,9,Aug
"""

EXAMPLE_PROMPTS = [
    "summarize sales by region",
    "top 3 by revenue",
    "sort by units high to low",
    "average revenue statistics",
    "find electronics",
    "compare categories",
]

EXAMPLE_FORMULA_PROMPTS = [
    "calculate profit margin",
    "categorize revenue",
    "highlight outliers",
    "total revenue",
]
