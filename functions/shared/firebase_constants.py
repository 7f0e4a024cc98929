# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

# Firestore collection and local-persistence slot names.
USERS_COLLECTION = "users"
SERVICES_COLLECTION = "services"
REQUESTS_COLLECTION = "serviceRequests"
REVIEWS_COLLECTION = "reviews"

# Lightweight paths used only to check that the database answers.
SYSTEM_COLLECTION = "system"
SYSTEM_STATUS_DOC = "status"
PING_COLLECTION = "ping"
PING_DOC = "test"

OFFLINE_SERVICES_KEY = "offlineServices"
