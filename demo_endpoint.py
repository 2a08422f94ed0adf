"""
Quick demo script to run the recommendations API locally.
"""

import uvicorn

if __name__ == "__main__":
    print("=" * 60)
    print("Starting Librarian Backend Demo")
    print("=" * 60)
    print()
    print("📌 API Endpoints:")
    print("   - Health Check:     GET  http://localhost:8000/health")
    print("   - Recommendations:  POST http://localhost:8000/recommendations")
    print("   - API Docs:              http://localhost:8000/docs")
    print()
    print("🔐 Authentication:")
    print("   Optional. Send Authorization: Bearer <token> to tag requests")
    print("   with your user id.")
    print()
    print("📝 Test with curl:")
    print('   curl -X POST "http://localhost:8000/recommendations" \\')
    print('     -H "Content-Type: application/json" \\')
    print('     -d \'{"query": "mystery with unreliable narrator"}\'')
    print()
    print("=" * 60)

    uvicorn.run(
        "librarian.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
