from mangum import Mangum

from accessly.app import app

# Vercel handler
handler = Mangum(app)
