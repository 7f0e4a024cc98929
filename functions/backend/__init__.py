"""
Backend package for the time bank.

Data access over Firebase (Firestore + Authentication) with a read-through
cache, connectivity probing, deadline-bounded remote calls and a local
fallback for writes made while offline, exposed through a FastAPI app.
"""
