# HTTP layer: analysis proxy, clip library routes and error mapping
